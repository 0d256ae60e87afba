"""> DD2D: Custom exceptions (subclasses of `dd2d.exceptions.Error`)."""

# <https://docs.python.org/3.11/tutorial/errors.html#user-defined-exceptions>


class Error(Exception):
    """Base class for exceptions in DD2D."""

    def __str__(self):
        return getattr(self, "message", super().__str__())


class ConfigError(Error):
    """Exception raised for errors in the simulation parameter file.

    Attributes:
    - message — explanation of the error, including the file and line number

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message


class StructureError(Error):
    """Exception raised for errors in defect structure files.

    Attributes:
    - message — explanation of the error, including the file and line number

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message


class TessellationError(Error):
    """Exception raised for errors in tessellation or orientation files.

    Attributes:
    - message — explanation of the error

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message


class GeometryError(Error):
    """Exception raised for defect geometries that the model does not support.

    Only pure edge dislocations are supported, i.e. the Burgers vector must be
    perpendicular to the line vector.

    Attributes:
    - message — explanation of the error

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message


class SCSVError(Error):
    """Exception raised for errors in SCSV file I/O.

    Attributes:
    - message — explanation of the error

    """

    def __init__(self, message):  # pylint: disable=super-init-not-called
        self.message = message
