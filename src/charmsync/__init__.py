"""charmsync: deploy, read, update and destroy charm applications on a Juju controller."""

__version__ = "0.1.0"
