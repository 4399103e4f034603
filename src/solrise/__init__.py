from solrise.consts import VERSION

__version__ = VERSION
