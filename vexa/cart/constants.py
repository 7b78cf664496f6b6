from vexa.common.logging_setup import get_logger

logger = get_logger("vexa.cart")
