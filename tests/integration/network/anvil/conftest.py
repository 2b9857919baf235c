# tests the node layer against a local anvil node

import shutil
import socket
import subprocess
import sys
import time

import pytest
import requests

from forkdeal.node import ForkNode


@pytest.fixture(scope="module")
def free_port():
    # https://gist.github.com/bertjwregeer/0be94ced48383a42e70c3d9fff1f4ad0
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    s.bind(("0.0.0.0", 0))
    portnum = s.getsockname()[1]
    s.close()

    return portnum


@pytest.fixture(scope="module")
def anvil_node(free_port):
    if shutil.which("anvil") is None:
        pytest.skip("anvil is not installed")

    anvil_cmd = f"anvil --port {free_port}".split(" ")
    anvil = subprocess.Popen(anvil_cmd, stdout=sys.stdout, stderr=sys.stderr)
    anvil_uri = f"http://localhost:{free_port}"

    try:
        # wait for anvil to come up
        while True:
            try:
                requests.head(anvil_uri)
                break
            except requests.exceptions.ConnectionError:
                time.sleep(0.1)

        yield ForkNode.from_url(anvil_uri, dialect="anvil")
    finally:
        anvil.terminate()
        try:
            anvil.wait(timeout=10)
        except subprocess.TimeoutExpired:
            anvil.kill()
            anvil.wait(timeout=1)
