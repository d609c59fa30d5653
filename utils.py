# utils.py

FREE_COLOR = "#d3d3d3"


def process_color(process_id):
    """Return a distinct colour for a process (golden-angle hue spacing)."""
    hue = (process_id * 137.508) % 360
    return f"hsl({hue:.0f}, 70%, 60%)"


def slot_color(page, processes):
    """Colour for a frame/block slot holding ``page`` (None when free)."""
    if page is None:
        return FREE_COLOR
    process = processes.get(page.process_id)
    return process.color if process else process_color(page.process_id)
