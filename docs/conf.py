import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath('..'))

import omada_controller_api  # noqa: E402

project = 'omada-controller-api'
copyright = f'{datetime.now().year}, omada-controller-api contributors'
author = 'omada-controller-api contributors'
release = omada_controller_api.__version__

# -- General configuration ---------------------------------------------------
extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.viewcode',
    'sphinx.ext.napoleon',         # Google style docstrings
    'sphinx.ext.intersphinx',
    'sphinx_autodoc_typehints',
]

autosummary_generate = True
autodoc_member_order = 'bysource'
autoclass_content = 'both'
autodoc_typehints = 'description'

exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store', '_autosummary']


def skip_private_modules(app, what, name, obj, skip, options):
    # __main__ is the CLI, documented in the index page instead
    if what == 'module' and name.endswith('.__main__'):
        return True
    return skip


def setup(app):
    app.connect('autodoc-skip-member', skip_private_modules)


templates_path = ['_templates']
html_theme = 'sphinx_rtd_theme'
html_title = f"{project} Documentation"

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'requests': ('https://requests.readthedocs.io/en/latest/', None),
}

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = True
napoleon_use_ivar = True
