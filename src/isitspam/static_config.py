from typing import Final

PRODUCT_NAME: Final[str] = "IsItSpam Python Client"

VERSION: Final[str] = "1.0.0"

USER_AGENT: Final[str] = f"{PRODUCT_NAME} {VERSION}"

DEFAULT_BASE_URL: Final[str] = "https://is-it-spam.com"

DEFAULT_TIMEOUT_SEC: Final[int] = 30
