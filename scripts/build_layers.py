#!/usr/bin/env python3
"""
Build script for the E-Commerce API Lambda layers.

Installs each layer's requirements into its ``python/`` directory, which is
where the Lambda runtime looks for layer packages. Run before ``cdk deploy``.
"""

import os
import shutil
import subprocess
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
LAYERS_DIR = os.path.join(PROJECT_ROOT, "lambda_layers")


def run_command(command, check=True):
    """Run shell command and return result."""
    print(f"Running: {command}")
    result = subprocess.run(command, shell=True, capture_output=True, text=True)
    if check and result.returncode != 0:
        print(f"Error running command: {command}")
        print(f"stdout: {result.stdout}")
        print(f"stderr: {result.stderr}")
        sys.exit(1)
    return result


def build_layer(layer_dir):
    """Install a layer's requirements into a clean python/ directory."""
    requirements = os.path.join(layer_dir, "requirements.txt")
    if not os.path.exists(requirements):
        print(f"Skipping {layer_dir}: no requirements.txt")
        return False

    target = os.path.join(layer_dir, "python")
    if os.path.exists(target):
        shutil.rmtree(target)
    os.makedirs(target)

    run_command(
        f"{sys.executable} -m pip install -r {requirements} -t {target} "
        "--platform manylinux2014_x86_64 --only-binary=:all: "
        "--implementation cp --python-version 3.11 --upgrade"
    )
    return True


def main():
    """Build every layer under lambda_layers/."""
    layers = sys.argv[1:] or sorted(os.listdir(LAYERS_DIR))
    built = 0
    for name in layers:
        layer_dir = os.path.join(LAYERS_DIR, name)
        if os.path.isdir(layer_dir) and build_layer(layer_dir):
            print(f"Built layer: {name}")
            built += 1

    print(f"Built {built} layer(s)")


if __name__ == "__main__":
    main()
