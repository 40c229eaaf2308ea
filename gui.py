#!/usr/bin/env python3
"""Tkinter GUI for inspecting an .eml message.

Open an .eml file (or paste raw message text), browse and search its headers,
copy a header value to the clipboard, and see where the public IPs in the
headers are located. Lookups run on a background thread; results from an
older run are dropped if a newer file was opened in the meantime.
"""
import logging
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from eml_geo.analyzer import AnalysisSession, EmlAnalyzerError, check_extension, filter_headers, read_eml_file
from main import setup_logging

log = logging.getLogger(__name__)


def pasted_message(widget_text):
    """Return pasted text as the parser should see it, or None if nothing was pasted.

    Tk's Text.get always appends one newline; only that is dropped, since leading
    blank or indented lines change where the header block ends.
    """
    if not widget_text.strip():
        return None
    return widget_text[:-1] if widget_text.endswith('\n') else widget_text


class EmlGeoGUI(tk.Tk):
    def __init__(self, session=None):
        super().__init__()
        self.title('EML Header Geolocator')
        self.geometry('1000x700')
        self.session = session or AnalysisSession()

        top = tk.Frame(self)
        top.pack(fill=tk.X, padx=8, pady=8)

        btn_open = tk.Button(top, text='Open .eml...', command=self.open_file)
        btn_open.pack(side=tk.LEFT, padx=4)

        lbl_search = tk.Label(top, text='Search headers:')
        lbl_search.pack(side=tk.LEFT, padx=(12, 2))
        self.search_var = tk.StringVar()
        self.search_var.trace_add('write', lambda *_: self.render_headers())
        ent_search = tk.Entry(top, textvariable=self.search_var, width=36)
        ent_search.pack(side=tk.LEFT, padx=(0, 4))

        btn_copy = tk.Button(top, text='Copy value', command=self.copy_selected_value)
        btn_copy.pack(side=tk.LEFT, padx=4)

        self.summary_var = tk.StringVar(value='No message loaded.')
        lbl_summary = tk.Label(self, textvariable=self.summary_var, anchor='w')
        lbl_summary.pack(fill=tk.X, padx=8)

        panes = tk.PanedWindow(self, orient=tk.HORIZONTAL)
        panes.pack(fill=tk.BOTH, expand=True, padx=8, pady=8)

        # Header table
        tree_frame = tk.Frame(panes)
        self.tree = ttk.Treeview(tree_frame, columns=('name', 'value'), show='headings')
        self.tree.heading('name', text='Header')
        self.tree.heading('value', text='Value')
        self.tree.column('name', width=180, stretch=False)
        self.tree.column('value', width=420)
        scroll = ttk.Scrollbar(tree_frame, orient=tk.VERTICAL, command=self.tree.yview)
        self.tree.configure(yscrollcommand=scroll.set)
        self.tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scroll.pack(side=tk.RIGHT, fill=tk.Y)
        self.tree.bind('<Double-1>', lambda _e: self.copy_selected_value())
        panes.add(tree_frame, stretch='always')

        # Geolocation cards
        self.geo = tk.Text(panes, wrap='word', width=40)
        panes.add(self.geo)

        # Paste area for raw message text
        paste_frame = tk.Frame(self)
        paste_frame.pack(fill=tk.BOTH, expand=False, padx=8, pady=(0, 8))
        lbl_paste = tk.Label(paste_frame, text='Or paste a raw message here:')
        lbl_paste.pack(anchor='w')
        self.paste_text = tk.Text(paste_frame, height=6, wrap='none')
        self.paste_text.pack(fill=tk.BOTH, expand=True)
        paste_btn_frame = tk.Frame(paste_frame)
        paste_btn_frame.pack(fill=tk.X)
        btn_paste_run = tk.Button(paste_btn_frame, text='Paste & Analyze', command=self.paste_and_run)
        btn_paste_run.pack(side=tk.LEFT, padx=4, pady=4)
        btn_clear_paste = tk.Button(paste_btn_frame, text='Clear Paste',
                                    command=lambda: self.paste_text.delete('1.0', tk.END))
        btn_clear_paste.pack(side=tk.LEFT, padx=4, pady=4)

        self.status_var = tk.StringVar(value='Ready.')
        status = tk.Label(self, textvariable=self.status_var, anchor='w', relief=tk.SUNKEN)
        status.pack(fill=tk.X, side=tk.BOTTOM)

    def open_file(self):
        path = filedialog.askopenfilename(title='Select email message', filetypes=[
                                          ('Email messages', '*.eml'), ('All files', '*.*')])
        if not path:
            return
        try:
            check_extension(path)
        except EmlAnalyzerError as e:
            messagebox.showerror('Unsupported file', str(e))
            return
        generation = self.session.begin()
        self.status_var.set(f'Loading {path}...')
        t = threading.Thread(target=self._load_file, args=(generation, path), daemon=True)
        t.start()

    def paste_and_run(self):
        text = pasted_message(self.paste_text.get('1.0', tk.END))
        if text is None:
            messagebox.showwarning('No message', 'Paste a raw message into the box before clicking Paste & Analyze.')
            return
        generation = self.session.begin()
        self.status_var.set('Analyzing pasted message...')
        t = threading.Thread(target=self._analyze, args=(generation, text), daemon=True)
        t.start()

    def _load_file(self, generation, path):
        try:
            text = read_eml_file(path)
        except EmlAnalyzerError as e:
            self.after(0, self._on_error, generation, str(e))
            return
        self._analyze(generation, text)

    def _analyze(self, generation, text):
        # runs on a worker thread; Tk calls go through after()
        result = self.session.run(generation, text)
        if result is not None:
            self.after(0, self._on_done, result)

    def _on_done(self, result):
        if not self.session.is_current(result.generation):
            return
        self.render_headers()
        self.render_geo()
        s = result.summary()
        self.summary_var.set(
            f"{s['headers']} headers ({s['header_names']} distinct) | "
            f"{s['public_ips']} public IPs | {s['locations']} located in {s['countries']} countries")
        self.status_var.set('Done.')

    def _on_error(self, generation, message):
        if self.session.fail(generation, message):
            self.status_var.set('Error.')
            messagebox.showerror('Could not read file', message)

    def render_headers(self):
        self.tree.delete(*self.tree.get_children())
        result = self.session.current
        if result is None:
            return
        for h in filter_headers(result.message.headers, self.search_var.get()):
            self.tree.insert('', tk.END, values=(h.name, h.value))

    def render_geo(self):
        self.geo.delete('1.0', tk.END)
        result = self.session.current
        if result is None:
            return
        if not result.geo:
            msg = 'No geolocation data available.' if result.ips else 'No public IP addresses found.'
            self.geo.insert(tk.END, msg + '\n')
            return
        for g in result.geo:
            self.geo.insert(tk.END, f"{g.flag}  {g.ip}\n")
            self.geo.insert(tk.END, f"    {g.place}\n")
            self.geo.insert(tk.END, f"    ISP: {g.isp or 'Unknown'}\n")
            if g.lat is not None and g.lon is not None:
                self.geo.insert(tk.END, f"    {g.lat}, {g.lon}\n")
            self.geo.insert(tk.END, '\n')

    def copy_selected_value(self):
        selected = self.tree.selection()
        if not selected:
            self.status_var.set('Select a header to copy its value.')
            return
        name, value = self.tree.item(selected[0], 'values')
        try:
            self.clipboard_clear()
            self.clipboard_append(value)
            self.status_var.set(f'Copied value of {name} to clipboard.')
        except tk.TclError as e:
            log.warning('Clipboard write failed: %s', e)
            self.status_var.set(f'Could not copy to clipboard: {e}')


def main():
    setup_logging('WARNING')
    root = EmlGeoGUI()
    root.mainloop()


if __name__ == '__main__':
    main()
