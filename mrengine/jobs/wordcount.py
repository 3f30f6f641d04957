"""
Classic MapReduce word count job.
Counts the frequency of each whitespace-separated token in the input text.
Tokens are compared exactly: no case folding, punctuation stays attached.
"""


def map_function(key, value):
    """
    Map function: emit (token, 1) for each token in the line.

    Args:
        key: Byte offset of the line (unused)
        value: Text line

    Yields:
        (token, 1) tuples
    """
    for token in value.split():
        yield (token, 1)


def reduce_function(key, values):
    """
    Reduce function: sum all counts for a token.

    Args:
        key: Token
        values: Counts (1s from map, or partial sums from the combiner)

    Returns:
        Total count for the token
    """
    return sum(values)


def combiner_function(key, values):
    """
    Combiner function: pre-aggregate counts locally (same as reduce).
    Addition is associative and commutative, so partial sums are safe.
    """
    return sum(values)
