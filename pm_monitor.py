#!/usr/bin/env python3
# pm_monitor.py
import curses
import curses.textpad
import datetime
import logging
import re
import sys
import time
import traceback

import pm_config
from alert_log import AlertLog
from disk_block import DiskGroup
from graph_block import GraphGroup
from metric_types import InvalidConfiguration, MetricId, SampleError
from net_block import NetworkGroup
from render import render_alerts, render_top_processes
from sampler import Sampler
from scheduler import CancelToken, SchedulerLoop
from sensors_block import SensorsGroup
from thresholds import ThresholdEvaluator, ThresholdStore
from utils import addstr_clipped, addstr_colored_markup, draw_box, draw_text_block

MIN_TERM_ROWS = 20
MIN_TERM_COLS = 60
ERROR_LOG_PATH = "/tmp/pmpro_errors.log"
# psutil needs two reads to get per-process CPU usage
ALERT_CHECK_PRIME = 0.5

MENU_ITEMS = [
    ("g", "Live ASCII CPU/RAM Graph"),
    ("n", "Network Speed Monitor (live)"),
    ("d", "Disk I/O Monitor (iostat)"),
    ("s", "CPU Temp / Sensors"),
    ("a", "High-CPU Alert Settings"),
    ("l", "View alert log"),
    ("h", "Help / About"),
    ("q", "Exit"),
]

HELP_LINES = [
    "<c1>Process Manager Pro - live monitors</>",
    "",
    "<c2>g</> ASCII CPU/RAM graph with top-5 CPU alerting",
    "<c2>n</> per-interface network speed (/sys/class/net counters)",
    "<c2>d</> disk I/O via iostat (package: sysstat)",
    "<c2>s</> temperatures via psutil or lm-sensors",
    "<c2>a</> change the high-CPU threshold and run one check",
    "<c2>l</> view the alert log",
    "",
    "Live screens refresh every tick; <c3>q</> or <c3>Esc</> goes back.",
    "Settings: ~/.config/pmpro/config.json",
]

log = logging.getLogger("pm_monitor")


class MonitorApp:
    def __init__(self, stdscr, config):
        self.stdscr = stdscr
        self.config = config
        self.store = ThresholdStore(pm_config.threshold_limits(config))
        self.evaluator = ThresholdEvaluator(self.store)
        self.sampler = Sampler()
        self.alert_log = AlertLog(config["log_file"])
        self.selected = 0
        self.status_message = ""
        self.init_curses()

    def init_curses(self):
        curses.curs_set(0)
        self.stdscr.keypad(True)
        curses.noecho()
        try:
            curses.set_escdelay(25)
        except AttributeError:
            pass
        self.has_colors = False
        try:
            if curses.has_colors():
                curses.start_color()
                curses.use_default_colors()
                curses.init_pair(1, curses.COLOR_CYAN, -1)
                curses.init_pair(2, curses.COLOR_GREEN, -1)
                curses.init_pair(3, curses.COLOR_YELLOW, -1)
                curses.init_pair(4, curses.COLOR_RED, -1)
                curses.init_pair(5, curses.COLOR_WHITE, -1)
                self.has_colors = True
        except curses.error:
            pass
        self.key_attr = self.get_style(1, bold=True)
        self.value_attr = self.get_style(5)
        self.warn_attr = self.get_style(3, bold=True)
        self.error_attr = self.get_style(4, bold=True)
        self.tag_map = {
            "<c1>": self.key_attr,
            "<c2>": self.get_style(2, bold=True),
            "<c3>": self.warn_attr,
            "<c4>": self.error_attr,
        }

    def get_style(self, pair_index, bold=False):
        style = curses.color_pair(pair_index) if self.has_colors else 0
        if bold:
            style |= curses.A_BOLD
        return style

    def set_status(self, msg):
        self.status_message = msg

    # --- drawing ---

    def terminal_too_small(self):
        rows, cols = self.stdscr.getmaxyx()
        if rows >= MIN_TERM_ROWS and cols >= MIN_TERM_COLS:
            return False
        self.stdscr.erase()
        msg = f"Terminal too small! (>= {MIN_TERM_COLS}x{MIN_TERM_ROWS})"
        addstr_clipped(self.stdscr, 0, 0, msg[: cols - 1], self.error_attr)
        self.stdscr.refresh()
        return True

    def draw_menu(self):
        if self.terminal_too_small():
            return
        draw_box(self.stdscr, "Process Manager Pro", self.key_attr)
        h, w = self.stdscr.getmaxyx()
        addstr_clipped(self.stdscr, 2, 3, "Choose an option", self.value_attr)
        for i, (key, label) in enumerate(MENU_ITEMS):
            attr = curses.A_REVERSE if i == self.selected else self.value_attr
            addstr_clipped(self.stdscr, 4 + i, 5, f" {key}  {label} ", attr)
        threshold = self.store.get(MetricId.CPU_PERCENT)
        info = f"High-CPU threshold: {threshold.limit:g}%" if threshold else ""
        addstr_clipped(self.stdscr, h - 3, 3, info, self.key_attr)
        if self.status_message:
            addstr_clipped(self.stdscr, h - 2, 3, self.status_message[: w - 6], self.warn_attr)
        self.stdscr.refresh()

    def show_popup(self, title, content_lines):
        rows, cols = self.stdscr.getmaxyx()
        popup_h = max(4, min(len(content_lines) + 3, rows - 2))
        plain = [re.sub(r"</?\w*>", "", str(line)) for line in content_lines] or [""]
        popup_w = max(25, min(max(len(title) + 2, max(len(p) for p in plain)) + 4, cols - 4))
        popup = curses.newwin(popup_h, popup_w, max(0, (rows - popup_h) // 2), max(0, (cols - popup_w) // 2))
        popup.keypad(True)
        draw_box(popup, title, self.key_attr)
        for i, line in enumerate(content_lines[: popup_h - 3]):
            addstr_colored_markup(popup, 1 + i, 1, line, self.value_attr, self.tag_map)
        exit_msg = "[Press q or Enter to close]"
        addstr_clipped(popup, popup_h - 2, max(1, (popup_w - len(exit_msg)) // 2), exit_msg, curses.A_DIM)
        popup.refresh()
        while popup.getch() not in (ord("q"), ord("\n"), curses.KEY_ENTER, 27, curses.KEY_RESIZE):
            pass
        del popup
        self.stdscr.clear()

    def get_input_from_popup(self, prompt, initial=""):
        h, w = self.stdscr.getmaxyx()
        popup_h, popup_w = 3, max(30, w // 2)
        popup_border = curses.newwin(popup_h, popup_w, (h - popup_h) // 2, (w - popup_w) // 2)
        popup_border.border()
        addstr_clipped(popup_border, 0, 2, f" {prompt} ", self.warn_attr)
        popup_border.refresh()
        edit_win = popup_border.derwin(1, popup_w - 2, 1, 1)
        edit_win.keypad(True)
        addstr_clipped(edit_win, 0, 0, initial)
        curses.curs_set(1)
        box = curses.textpad.Textbox(edit_win)
        try:
            box.edit()
        finally:
            curses.curs_set(0)
        self.stdscr.clear()
        return box.gather().strip()

    # --- live screens ---

    def run_live(self, group):
        token = CancelToken()
        stdscr = self.stdscr

        def deliver(result):
            if self.terminal_too_small():
                return
            draw_box(stdscr, f"{group.title} (q to stop)", self.key_attr)
            row = draw_text_block(stdscr, result.text, 1, self.value_attr)
            h, w = stdscr.getmaxyx()
            for event in result.alerts[: max(0, h - 2 - row)]:
                addstr_clipped(stdscr, row, 1, f"ALERT {event.subject} {event.value:g}", self.error_attr)
                row += 1
            stdscr.refresh()

        def wait(cancel, timeout):
            deadline = time.monotonic() + timeout
            while not cancel.cancelled:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return
                stdscr.timeout(max(1, int(remaining * 1000)))
                key = stdscr.getch()
                if key in (ord("q"), ord("Q"), 27):
                    cancel.cancel()
                elif key == curses.KEY_RESIZE:
                    stdscr.clear()

        def on_error(error):
            self.set_status(str(error))

        loop = SchedulerLoop(
            group,
            deliver,
            interval=self.config["interval"],
            on_error=on_error,
            on_alert=self.alert_log.append,
            wait=wait,
        )
        loop.run(token)
        stdscr.timeout(-1)
        stdscr.clear()

    def graph_screen(self):
        group = GraphGroup(
            self.sampler,
            self.evaluator,
            history_len=self.config["history_len"],
            cpu_scale=self.config["cpu_scale"],
            mem_scale=self.config["mem_scale"],
            top_n=self.config["top_n"],
            interval=self.config["interval"],
        )
        self.run_live(group)

    def network_screen(self):
        try:
            available = self.sampler.list_interfaces()
        except SampleError as e:
            self.show_popup("Network", [f"<c4>{e}</>"])
            return
        default = self.config.get("interface") or self.sampler.default_interface() or ""
        self.show_popup("Network", ["Available: " + " ".join(available), "", "Enter the interface next."])
        iface = self.get_input_from_popup("Interface to monitor", default)
        if not iface:
            return
        try:
            group = NetworkGroup(
                self.sampler,
                self.evaluator,
                iface,
                history_len=self.config["history_len"],
                rate_scale=self.config["rate_scale"],
            )
        except InvalidConfiguration:
            self.show_popup("Network", [f"<c4>Interface {iface} not found.</>"])
            return
        self.run_live(group)

    def disk_screen(self):
        self.run_live(DiskGroup(self.sampler, self.evaluator, history_len=self.config["history_len"]))

    def sensors_screen(self):
        self.run_live(SensorsGroup(self.sampler, self.evaluator))

    def alert_settings(self):
        current = self.store.get(MetricId.CPU_PERCENT)
        raw = self.get_input_from_popup(
            "High-CPU alert threshold (percent)", f"{current.limit:g}" if current else ""
        )
        if raw:
            try:
                new = self.store.set_limit(MetricId.CPU_PERCENT, raw)
            except InvalidConfiguration:
                self.show_popup("High CPU Alert", ["<c4>Invalid value.</>"])
                return
            self.config["cpu_threshold"] = new.limit
            if pm_config.save_config(self.config):
                self.set_status(f"Threshold set to {new.limit:g}%.")
            else:
                self.set_status(f"Threshold set to {new.limit:g}% (not saved).")
        self.check_high_cpu_once()

    def check_high_cpu_once(self):
        self.sampler.top_cpu_processes(self.config["top_n"])
        time.sleep(ALERT_CHECK_PRIME)
        top = self.sampler.top_cpu_processes(self.config["top_n"])
        alerts = self.evaluator.evaluate(MetricId.CPU_PERCENT, top)
        threshold = self.store.get(MetricId.CPU_PERCENT)
        for event in alerts:
            self.alert_log.append(event)
        lines = render_alerts(alerts, threshold.limit if threshold else None).splitlines()
        lines += [""] + render_top_processes(top).splitlines()
        self.show_popup("High CPU Alert" if alerts else "High CPU Check", lines)

    def show_log(self):
        lines = self.alert_log.tail(self.stdscr.getmaxyx()[0] - 5)
        self.show_popup(f"Alert log ({self.alert_log.path})", lines or ["(empty)"])

    # --- main loop ---

    def run(self):
        actions = {
            "g": self.graph_screen,
            "n": self.network_screen,
            "d": self.disk_screen,
            "s": self.sensors_screen,
            "a": self.alert_settings,
            "l": self.show_log,
            "h": lambda: self.show_popup("About - Process Manager Pro", HELP_LINES),
        }
        while True:
            self.draw_menu()
            key = self.stdscr.getch()
            if key == curses.KEY_UP:
                self.selected = (self.selected - 1) % len(MENU_ITEMS)
                continue
            if key == curses.KEY_DOWN:
                self.selected = (self.selected + 1) % len(MENU_ITEMS)
                continue
            if key in (curses.KEY_ENTER, 10, 13):
                choice = MENU_ITEMS[self.selected][0]
            elif 0 <= key < 256:
                choice = chr(key).lower()
            else:
                continue
            if choice == "q" or key == 27:
                break
            action = actions.get(choice)
            if action:
                self.set_status("")
                action()


def setup_logging(stream):
    logging.basicConfig(
        stream=stream,
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main():
    original_stderr = sys.stderr
    try:
        with open(ERROR_LOG_PATH, "a") as log_file:
            log_file.write(f"\n--- Session started at {datetime.datetime.now().isoformat()} ---\n")
            sys.stderr = log_file
            setup_logging(log_file)
            config = pm_config.load_config()
            curses.wrapper(lambda stdscr: MonitorApp(stdscr, config).run())
    except curses.error as e:
        sys.stderr = original_stderr
        print(f"Curses initialization error: {e}", file=sys.stderr)
        print(f"Term size? (>= {MIN_TERM_COLS}x{MIN_TERM_ROWS})", file=sys.stderr)
        print(f"(Check {ERROR_LOG_PATH} for errors)", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        sys.stderr = original_stderr
        print("\n--- UNEXPECTED ERROR ---", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
        print(f"------------------------\nError: {e}", file=sys.stderr)
        print(f"(Check {ERROR_LOG_PATH} for errors)", file=sys.stderr)
        sys.exit(1)
    finally:
        sys.stderr = original_stderr


if __name__ == "__main__":
    main()
