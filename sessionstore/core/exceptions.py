"""Exception types raised while configuring a session store."""


class ConfigurationError(ValueError):
    """Raised when store construction arguments cannot be used"""
    pass


class SerializerConfigError(ConfigurationError):
    """Raised when a serializer name, config mapping or instance is invalid"""
    pass
