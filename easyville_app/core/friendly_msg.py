FRIENDLY_MESSAGES = {
    "ConnectionError": "Unable to reach a required service. Please try again later.",
    "TimeoutError": "The request took too long. Please try again later.",
    "IntegrityError": "This record conflicts with existing data.",
    "OperationalError": "Temporary issue while accessing data. Please try again shortly.",
    "DatabaseError": "Temporary issue while accessing data. Please try again shortly.",
    "ValueError": "Invalid data received. Please check your input and try again.",
}


def get_friendly_message(error: Exception) -> str:
    name = type(error).__name__.lower()
    for key, msg in FRIENDLY_MESSAGES.items():
        if key.lower() in name:
            return msg
    return "Something went wrong on our end. Please try again."
