"""
Entry point for running the Direct Line client as a module.

This allows users to run: python -m directline
"""

from directline.cli.main import app

if __name__ == "__main__":
    app()
