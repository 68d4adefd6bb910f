def color_text(text, color_code):
    return f"\033[{color_code}m{text}\033[0m"

def debug_text(text):
    return f"{color_text('DEBUG', '31')} {text}"

def info_text(text):
    return f"{color_text('INFO', '32')}  {text}"


def highlight_agent(board_text):
    """Colour the agent marker of a rendered maze board."""
    return board_text.replace("@", color_text("@", "33"))
