"""SDK version and user-agent strings."""

import platform

__version__ = "0.1.0"

SDK_NAME = "cspark-python"


def platform_info() -> str:
    return f"Python {platform.python_version()}; {platform.system()} {platform.machine()}".strip()


USER_AGENT = f"{SDK_NAME}/{__version__}"
SDK_UA_HEADER = f"agent={SDK_NAME}/{__version__}; env={platform_info()}"

__all__ = ["__version__", "SDK_NAME", "USER_AGENT", "SDK_UA_HEADER", "platform_info"]
