import string

_formatter = string.Formatter()


def _escape(text):
    return text.replace('{', '{{').replace('}', '}}')


def partial_format(format_string, **kwargs):
    """Replace the named fields given in `kwargs`, leaving the others intact.

    The result is itself a format string, so the remaining fields may be
    filled in later. This lets the fixed part of a trace message prefix be
    formatted once, with only the period formatted per message.

    Nested replacement fields in format specs are not supported.

    :param str format_string: Format string to partially apply replacements.
    :param kwargs: Replacements for named fields.
    :returns: Partially formatted format string.

    """
    parts = []
    for literal, field, spec, conversion in _formatter.parse(format_string):
        parts.append(_escape(literal))
        if field is None:
            continue
        replacement = ''.join([
            '{', field,
            '!' + conversion if conversion else '',
            ':' + spec if spec else '',
            '}',
        ])
        if field in kwargs:
            parts.append(_escape(replacement.format(**kwargs)))
        else:
            parts.append(replacement)
    return ''.join(parts)
