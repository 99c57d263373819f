"""Watch a YAML file and regenerate its DOT graph (and optionally an SVG).

This script uses watchdog to monitor a YAML file. When the file changes the
DOT file is rewritten, and if an SVG path was given the Graphviz ``dot``
binary renders it. A rebuild that fails to load or convert the document is
reported and leaves the previous outputs in place.
"""
from __future__ import annotations

import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

import yaml_dot


class GraphHandler(FileSystemEventHandler):
    def __init__(
        self,
        yaml_file: Path,
        dot_file: Path,
        svg_file: Optional[Path] = None,
        dot_binary: Optional[str] = None,
    ):
        if svg_file is not None and not dot_binary:
            raise RuntimeError("Graphviz 'dot' binary not found; set GRAPHVIZ_DOT")
        self.yaml_file = Path(yaml_file).resolve()
        self.dot_file = Path(dot_file)
        self.svg_file = svg_file
        self.dot_binary = dot_binary
        self.build()

    def build(self) -> bool:
        """Rebuild the DOT (and SVG) files. Returns False if the rebuild failed."""
        try:
            yaml_dot.write_dot_from_yaml(self.yaml_file, self.dot_file)
        except yaml_dot.DocumentError as e:
            print(f"Rebuild failed: {e}: {e.__cause__}", flush=True)
            return False
        except yaml_dot.ConversionError as e:
            print(f"Rebuild failed: {e}", flush=True)
            return False
        if self.svg_file is not None:
            try:
                subprocess.run([
                    self.dot_binary,
                    "-Tsvg",
                    str(self.dot_file),
                    "-o",
                    str(self.svg_file),
                ], check=True)
            except (OSError, subprocess.CalledProcessError) as e:
                print(f"Rebuild failed: could not render {self.svg_file}: {e}", flush=True)
                return False
        print(f"Rebuilt {self.dot_file}", flush=True)
        return True

    def on_modified(self, event):
        if Path(event.src_path).resolve() == self.yaml_file:
            self.build()


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Watch a YAML file and regenerate its DOT graph")
    parser.add_argument("yaml_file", type=Path)
    parser.add_argument("dot_file", type=Path)
    parser.add_argument("svg_file", type=Path, nargs="?")
    args = parser.parse_args()

    dot_binary = os.environ.get("GRAPHVIZ_DOT") or shutil.which("dot")
    handler = GraphHandler(args.yaml_file, args.dot_file, args.svg_file, dot_binary)
    observer = Observer()
    observer.schedule(handler, str(handler.yaml_file.parent), recursive=False)
    observer.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        observer.stop()
    observer.join()


if __name__ == "__main__":
    main()
