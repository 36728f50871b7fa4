class DevServerError(Exception):
    pass


class ConfigurationError(DevServerError):
    pass


class MissingDependencyError(ConfigurationError):
    def __init__(self, key):
        super().__init__(f"Missing injected upstream dependency: {key}")
        self.key = key


class InvalidPathError(DevServerError):
    def __init__(self, path):
        super().__init__(f"Invalid path: {path}")
        self.path = path


class PortsExhaustedError(DevServerError):
    def __init__(self, retries, last_port):
        super().__init__(
            f"Tried {retries} different ports but they were all in use. "
            "You can choose a different starting port using --port on the command line."
        )
        self.retries = retries
        self.last_port = last_port
