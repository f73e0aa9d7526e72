from masdeporte.payments.deep_link import (
    is_payment_successful,
    parse_payment_callback_url,
    resolve_payment_callback,
)

__all__ = ["resolve_payment_callback", "parse_payment_callback_url", "is_payment_successful"]
