"""Environment backed settings shared by the indexer, the API server and all backend clients."""

import logging
import os

_TRUE_VALUES = ("true", "1", "yes", "on")


class HelperConfig:
    """
    Reads typed settings from environment variables.

    Keys are case-insensitive and blank values count as unset. A getter called
    without a default treats its key as required.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    ##########################################
    ################ HELPERS #################
    ##########################################

    @staticmethod
    def _read(key: str) -> str | None:
        val = os.getenv(key.upper())
        if val is None or not val.strip():
            return None
        return val.strip()

    @staticmethod
    def _missing(key: str) -> ValueError:
        return ValueError(f"Environment variable '{key.upper()}' is not set.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """
        Args:
            key (str): Environment variable name.
            default (str | None): Returned when the variable is unset.

        Raises:
            ValueError: If the variable is unset and no default is given.
        """
        val = self._read(key)
        if val is not None:
            return val
        if default is None:
            raise self._missing(key)
        return default

    def get_optional_string_val(self, key: str) -> str | None:
        """Returns the value of the variable, or None if it is unset."""
        return self._read(key)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """
        Reads an int, or a float when the value contains a decimal point.

        Raises:
            ValueError: If the variable is unset without a default, or not a number.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_int_val(self, key: str, default: int | None = None, minimum: int | None = None) -> int:
        """
        Reads a whole number, e.g. a batch or page size.

        Args:
            key (str): Environment variable name.
            default (int | None): Returned when the variable is unset.
            minimum (int | None): Smallest accepted value. Smaller values are raised to it with a warning.

        Raises:
            ValueError: If the variable is unset without a default, or not a number.
        """
        val = int(self.get_number_val(key, default=default))
        if minimum is not None and val < minimum:
            self._logger.warning("%s=%d is below the minimum of %d, using %d", key.upper(), val, minimum, minimum)
            return minimum
        return val

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """
        Accepts true/1/yes/on (any case) as True, everything else as False.

        Raises:
            ValueError: If the variable is unset and no default is given.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        return raw.lower() in _TRUE_VALUES

    def get_logger(self) -> logging.Logger:
        return self._logger
