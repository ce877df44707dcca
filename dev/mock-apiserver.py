#!/usr/bin/env python3
"""Mock Kubernetes API server (pods endpoint only) for local development."""

import hashlib
import sys

from flask import Flask, jsonify

app = Flask(__name__)


@app.route("/api/v1/namespaces/<namespace>/pods/<pod>", methods=["GET"])
def get_pod(namespace: str, pod: str):
    """Return a canned Pod document for any namespace/pod."""
    uid = hashlib.sha1(f"{namespace}/{pod}".encode("utf-8")).hexdigest()
    return jsonify(
        {
            "kind": "Pod",
            "apiVersion": "v1",
            "metadata": {
                "name": pod,
                "namespace": namespace,
                "selfLink": f"/api/v1/namespaces/{namespace}/pods/{pod}",
                "uid": f"{uid[:8]}-{uid[8:12]}-{uid[12:16]}-{uid[16:20]}-{uid[20:32]}",
                "labels": {"app": pod.rsplit("-", 1)[0]},
                "annotations": {"mock.kube-meta/served-by": "dev/mock-apiserver.py"},
            },
            "spec": {"nodeName": "mock-node"},
            "status": {"phase": "Running"},
        }
    )


@app.route("/healthz")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    print("Mock Kubernetes API server starting on http://0.0.0.0:18001", file=sys.stderr)
    app.run(host="0.0.0.0", port=18001, debug=False)
