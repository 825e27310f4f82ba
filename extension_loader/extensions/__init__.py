"""Bundled extensions admitted by the default SecurityPolicy."""
