FRIENDLY_MESSAGES = {
    "TransactionError": "The lease could not be saved. Please try again shortly.",
    "LeaseStateError": "This lease can no longer be changed in that way.",
    "DispatchError": "The message could not be delivered. Please try again later.",
    "ConnectError": "Unable to connect to a required service. Please try again later.",
    "TimeoutException": "The request took too long. Please try again later.",
    "SQLAlchemyError": "Temporary issue while accessing data. Please try again shortly.",
}


def get_friendly_message(error: Exception) -> str:
    for cls in type(error).__mro__:
        if cls.__name__ in FRIENDLY_MESSAGES:
            return FRIENDLY_MESSAGES[cls.__name__]
    return "Something went wrong on our end. Please try again."
