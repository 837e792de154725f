# utils.py

import curses
import datetime
import re

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

format_timestamp = lambda ts: datetime.datetime.fromtimestamp(ts).strftime(TIMESTAMP_FORMAT)


def timestamp():
    return datetime.datetime.now().strftime(TIMESTAMP_FORMAT)


def format_value(value):
    """Integers stay integers, everything else gets one decimal."""
    if isinstance(value, int) or float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def addstr_clipped(win, y, x, text, attr=0):
    try:
        if not win:
            return
        h, w = win.getmaxyx()
        if y >= h or y < 0 or x < 0 or x >= w:
            return
        available_width = w - x
        if available_width <= 0:
            return
        display_text = "".join(
            c if c.isprintable() else "?" for c in str(text)[:available_width]
        )
        try:
            win.addstr(y, x, display_text, attr)
        except curses.error:
            if len(display_text) > 0:
                try:
                    win.addstr(y, x, display_text[:-1], attr)
                except curses.error:
                    pass
    except curses.error:
        pass


def draw_box(win, title="", title_attr=0):
    try:
        if not win:
            return
        win.erase()
        win.border()
        h, w = win.getmaxyx()
        if title:
            trimmed_title = title.strip()
            title_len = len(trimmed_title)
            title_x = max(1, min(w - title_len - 4, (w - (title_len + 2)) // 2))
            addstr_clipped(win, 0, title_x, f" {trimmed_title} ", title_attr)
    except curses.error:
        pass


def addstr_colored_markup(win, y, start_x, text, default_attr, tag_map):
    try:
        if not win:
            return
        h, w = win.getmaxyx()
        if y >= h or y < 0:
            return
        current_x = start_x
        win.move(y, current_x)
        parts = re.split(r"(</?\w*>)", str(text))
        current_attr = default_attr
        for part in parts:
            if not part:
                continue
            if current_x >= w - 1:
                break
            if part == "</>":
                current_attr = default_attr
            elif part in tag_map:
                current_attr = tag_map[part]
            else:
                remaining_width_on_line = w - current_x - 1
                if remaining_width_on_line <= 0:
                    break
                clipped_part = "".join(
                    c if c.isprintable() else "?"
                    for c in part[:remaining_width_on_line]
                )
                try:
                    win.addstr(clipped_part, current_attr)
                    current_x += len(clipped_part)
                except curses.error:
                    break
    except curses.error:
        pass


def draw_text_block(win, text, start_row=1, attr=0):
    """Writes a rendered text block line by line inside a boxed window."""
    h, w = win.getmaxyx()
    row = start_row
    for line in text.splitlines():
        if row >= h - 1:
            break
        addstr_clipped(win, row, 1, line[: w - 2], attr)
        row += 1
    return row
