import base64
import hashlib

RELOAD_CLIENT = "reload-client.js"


def integrity_for(data):
    if isinstance(data, str):
        data = data.encode("utf-8")
    digest = hashlib.sha512(data).digest()
    return "sha512-" + base64.b64encode(digest).decode("ascii")


def script_tag(folder, integrity=None):
    attrs = ' type="module"'
    if integrity:
        attrs += f' integrity="{integrity}"'
    return f'<script{attrs} src="/{folder}/{RELOAD_CLIENT}"></script>'


def is_html(content_type):
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == "text/html"


def augment_content(content, script):
    # <title> is the only *required* element in an HTML document
    if content and "</title>" in content:
        return content.replace("</title>", f"</title>{script}", 1)

    # Past this point the HTML is invalid. Documents mid-edit often are,
    # so keep looking for anywhere sensible to put the script.
    for marker in ("</head>", "</body>", "</html>"):
        if content and marker in content:
            return content.replace(marker, f"{script}{marker}", 1)
    if content and "<!doctype html>" in content:
        return content.replace("<!doctype html>", f"<!doctype html>{script}", 1)

    # works without content at all
    return (content or "") + script
