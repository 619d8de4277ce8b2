import traceback

SUPPRESSED_ATTRIBUTE = "__suppressed__"


def add_suppressed(exception: BaseException, error: BaseException) -> bool:
    """Attaches `error` to `exception` as a secondary failure.

    Returns False if the exception doesn't accept the attachment, in which
    case the caller has to report `error` some other way.
    """
    try:
        suppressed = getattr(exception, SUPPRESSED_ATTRIBUTE, None)
        if suppressed is None:
            suppressed = []
            setattr(exception, SUPPRESSED_ATTRIBUTE, suppressed)
    except (AttributeError, TypeError):
        return False

    suppressed.append(error)

    # add_note is only available from Python 3.11
    if add_note := getattr(exception, "add_note", None):
        add_note(f"Suppressed: {error.__class__.__name__}: {error}")

    return True


def get_suppressed(exception: BaseException) -> tuple[BaseException, ...]:
    return tuple(getattr(exception, SUPPRESSED_ATTRIBUTE, None) or ())


def capture_stack(skip: int = 1) -> traceback.StackSummary:
    """Returns the current call stack, minus the innermost `skip` frames."""
    stack = traceback.extract_stack()
    return traceback.StackSummary.from_list(stack[: -(skip + 1)])
