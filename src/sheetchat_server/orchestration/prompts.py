"""System instruction for model submissions.

The instruction embeds the active worksheet name, which can change between
turns (and even between the two rounds of one turn), so it is rebuilt for
every submission rather than stored in the transcript.
"""

BASE_INSTRUCTION = (
    "You are a helpful assistant that interacts with Excel. "
    "You can access multiple worksheets in the workbook. "
    'The currently active worksheet is "{active_sheet}". '
    "Use the list_worksheet_names function to get a list of all available worksheets, "
    "and get_active_worksheet_name to check which worksheet is currently active. "
    "Follow the user's instructions to manipulate Excel spreadsheets, using the provided functions. "
    "You can create charts, pivot tables, filter data using a wide range of criteria, "
    "and perform various data operations. "
    "Ensure your responses are clear and formatted using markdown for better readability. "
    "You can use tables to present data when appropriate."
)

ORDERING_HINT = (
    " Make sure you use the functions in the appropriate order to achieve the desired "
    "result (i.e. don't execute all functions at once)."
)


def build_system_instruction(active_sheet: str, proposing: bool = True) -> str:
    """Render the system instruction for one submission.

    Args:
        active_sheet: Name of the worksheet active at submission time
        proposing: True for the first round, which also asks the model to
                   sequence its tool calls sensibly

    Returns:
        The system message text
    """
    instruction = BASE_INSTRUCTION.format(active_sheet=active_sheet)
    if proposing:
        instruction += ORDERING_HINT
    return instruction
