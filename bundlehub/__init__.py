"""bundlehub: resolve, sign, store and install CNAB-style application bundles."""

__version__ = "0.1.0"
