import os


class TemplatePath:
    """Filesystem helpers the server borrows from the build tool."""

    def absolute_path(self, *parts):
        return os.path.normpath(os.path.join(os.getcwd(), *parts))

    def is_directory(self, path):
        return os.path.isdir(path)

    def strip_leading_sub_path(self, path, sub_path):
        path = os.path.normpath(path)
        sub_path = os.path.normpath(sub_path)
        if sub_path in (".", ""):
            return path
        if path == sub_path:
            return ""
        if path.startswith(sub_path + os.sep):
            return path[len(sub_path) + 1:]
        return path


def transform_url(path_prefix, url):
    """Prefix a template url with the configured path prefix."""
    if not url or not path_prefix or path_prefix == "/":
        return url
    return path_prefix.rstrip("/") + "/" + url.lstrip("/")
