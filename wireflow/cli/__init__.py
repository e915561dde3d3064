# wireflow/cli/__init__.py
