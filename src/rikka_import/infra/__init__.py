"""Infrastructure adapters for rikka_import.

Store drivers are imported lazily, so importing this package does not
require redis or motor to be installed.
"""
