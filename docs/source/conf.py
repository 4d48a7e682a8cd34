# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# add project root to sys.path for autodoc
import os
import sys

sys.path.insert(0, os.path.abspath('../..'))

import SheetLedger

# -- Project information -----------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#project-information

project = 'SheetLedger'
copyright = SheetLedger.__copyright__
author = SheetLedger.__author__
release = SheetLedger.__version__

# -- General configuration ---------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#general-configuration

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.coverage',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx.ext.autosectionlabel',
    'sphinx_markdown_builder'
]

napoleon_google_docstring = True
napoleon_use_param = False
napoleon_use_ivar = False

pygments_style = "vs"
pygments_dark_style = "stata-dark"

templates_path = ['_templates']
exclude_patterns = []

autodoc_default_options = {
    'member-order': 'groupwise',
    'show-inheritance': True,
}
autodoc_preserve_defaults = True
autodoc_mock_imports = ['googleapiclient', 'google', 'fastapi', 'pydantic', 'uvicorn', 'pandas']

# -- Options for HTML output -------------------------------------------------
# https://www.sphinx-doc.org/en/master/usage/configuration.html#options-for-html-output

html_theme = 'furo'
highlight_language = "python"

html_context = {
    "display_github": True,
    "github_user": "wgergely",
    "github_repo": "SheetLedger",
    "github_version": "main",
    "conf_py_path": "/docs/source",
}
