from pathlib import Path
import os
import shutil
import subprocess
import sys
import xml.etree.ElementTree as ET

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
import yaml_dot

DOT_BINARY = os.environ.get("GRAPHVIZ_DOT") or shutil.which("dot")


@pytest.mark.skipif(not DOT_BINARY, reason="Graphviz dot binary not installed")
@pytest.mark.parametrize("edge_labels", [False, True])
def test_generated_svg_is_valid(tmp_path, edge_labels):
    root = Path(__file__).resolve().parent
    yaml_path = root / "fixtures" / "example.yaml"
    dot_path = tmp_path / "graph.dot"
    svg_path = tmp_path / "graph.svg"

    yaml_dot.write_dot_from_yaml(yaml_path, dot_path, edge_labels=edge_labels)
    subprocess.run([
        DOT_BINARY, "-Tsvg", str(dot_path), "-o", str(svg_path)
    ], check=True)

    svg = ET.parse(svg_path).getroot()
    assert "svg" in svg.tag
    ns = {"svg": "http://www.w3.org/2000/svg"}
    assert len(svg.findall(".//svg:g[@class='node']", ns)) == 16
    assert len(svg.findall(".//svg:g[@class='edge']", ns)) == 15
