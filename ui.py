from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from utils import format_size

console = Console()

PREVIEW_BYTES = 32


def describe_bytes(data: bytes) -> str:
    """Text if the string is printable UTF-8, otherwise a hex preview."""
    try:
        text = data.decode('utf-8')
        if text.isprintable():
            return repr(text)
    except UnicodeDecodeError:
        pass

    preview = data[:PREVIEW_BYTES].hex()
    if len(data) > PREVIEW_BYTES:
        preview += "…"
    return f"<{len(data)} bytes> {preview}"


def describe_scalar(value) -> Text:
    if isinstance(value, bytes):
        return Text(describe_bytes(value), style="green")
    return Text(str(value), style="cyan")


class BencodeUI:
    def __init__(self):
        self.console = console

    def print_log(self, message, level="INFO"):
        """Prints a styled log message."""
        color = "green" if level == "INFO" else "red"
        if level == "WARNING": color = "yellow"

        time_str = f"[{datetime.now().strftime('%H:%M:%S')}]"
        self.console.print(f"{time_str} [bold {color}]{level}[/]: {message}")

    def build_tree(self, value, label="value"):
        """Builds a rich Tree for a decoded bencode value."""
        tree = Tree(Text(label, style="bold"))
        self._add_node(tree, value)
        return tree

    def _add_node(self, node, value):
        if isinstance(value, dict):
            branch = node.add(Text(f"dict ({len(value)})", style="magenta"))
            for key, item in value.items():
                self._add_child(branch, describe_bytes(key), item)
        elif isinstance(value, list):
            branch = node.add(Text(f"list ({len(value)})", style="magenta"))
            for index, item in enumerate(value):
                self._add_child(branch, f"[{index}]", item)
        else:
            node.add(describe_scalar(value))

    def _add_child(self, branch, label, item):
        if isinstance(item, (dict, list)):
            self._add_node(branch.add(Text(label, style="bold blue")), item)
        else:
            branch.add(Text.assemble((label, "bold blue"), ": ", describe_scalar(item)))

    def show_tree(self, value, label="value"):
        self.console.print(self.build_tree(value, label))

    def torrent_table(self, torrent):
        """Summary table of a loaded Torrent."""
        table = Table(box=None, show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("Name", torrent.name)
        table.add_row("Info Hash", torrent.info_hash.hex())
        table.add_row("Size", format_size(torrent.total_length))
        table.add_row("Pieces", f"{torrent.number_of_pieces} x {format_size(torrent.piece_length)}")
        for url in torrent.announce_list[:10]:  # Show top 10
            table.add_row("Tracker", url)
        if torrent.meta_info.comment:
            table.add_row("Comment", torrent.meta_info.comment)
        if torrent.meta_info.created_by:
            table.add_row("Created By", torrent.meta_info.created_by)
        return table

    def show_torrent(self, torrent):
        self.console.print(Panel(self.torrent_table(torrent), title="Torrent", border_style="blue"))

        files = Table(title="Files", box=None)
        files.add_column("Path", style="cyan")
        files.add_column("Size", style="magenta", justify="right")
        for f in torrent.files:
            files.add_row(f['path'], format_size(f['length']))
        self.console.print(files)


ui = BencodeUI()
