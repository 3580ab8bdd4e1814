import textwrap

def dedent_strip(text: str) -> str:
    """
    Remove the common indentation of a multi-line string and trim the surrounding whitespace.

    Keeps the inline task tables in the tests readable.

    >>> dedent_strip(\"""
    ...     Task;Name;Duration
    ...     A;Dig;3
    ... \""")
    'Task;Name;Duration\\nA;Dig;3'
    """
    return textwrap.dedent(text).strip()
