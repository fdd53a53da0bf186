"""
Payment proof storage.
Write-once uploads that return a publicly dereferenceable URL.
    - LocalProofStore: files under UPLOAD_FOLDER, served from /proofs/<name>
    - HttpProofStore: object storage reachable over HTTP (Supabase-style API)
"""

import logging
import os
import uuid
from dataclasses import dataclass

import requests
from werkzeug.utils import secure_filename

from qrgo.errors import StorageFailure, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


@dataclass
class ProofUpload:
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"

    def validate(self):
        if not self.data:
            raise ValidationError("Payment proof is required for paid events.", field="payment_proof")
        ext = self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError("Payment proof must be an image file.", field="payment_proof")


def object_name(filename):
    return f"{uuid.uuid4().hex}-{secure_filename(filename) or 'proof'}"


class LocalProofStore:
    def __init__(self, root, public_base_url):
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, proof):
        name = object_name(proof.filename)
        path = os.path.join(self.root, name)
        try:
            os.makedirs(self.root, exist_ok=True)
            # "xb" refuses to overwrite an existing object
            with open(path, "xb") as fh:
                fh.write(proof.data)
        except OSError:
            logger.exception("Failed to write payment proof %s", name)
            raise StorageFailure()
        return f"{self.public_base_url}/proofs/{name}"

    def delete(self, url):
        name = url.rsplit("/", 1)[-1]
        try:
            os.remove(os.path.join(self.root, name))
        except OSError:
            logger.warning("Could not remove orphaned payment proof %s", name)


class HttpProofStore:
    def __init__(self, base_url, bucket, api_key=None, timeout=10.0):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.timeout = timeout
        self.headers = {}
        if api_key:
            self.headers['Authorization'] = f'Bearer {api_key}'

    def public_url(self, path):
        return f"{self.base_url}/object/public/{self.bucket}/{path}"

    def upload(self, proof):
        path = f"public/{object_name(proof.filename)}"
        headers = dict(self.headers)
        headers['Content-Type'] = proof.content_type
        try:
            response = requests.post(
                f"{self.base_url}/object/{self.bucket}/{path}",
                data=proof.data,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException:
            logger.exception("Payment proof upload to %s failed", self.bucket)
            raise StorageFailure()

        if response.status_code not in (200, 201):
            logger.error("Proof store returned %s: %s", response.status_code, response.text)
            raise StorageFailure()
        return self.public_url(path)

    def delete(self, url):
        prefix = f"{self.base_url}/object/public/{self.bucket}/"
        if not url.startswith(prefix):
            return
        path = url[len(prefix):]
        try:
            requests.delete(
                f"{self.base_url}/object/{self.bucket}/{path}",
                headers=self.headers,
                timeout=self.timeout
            )
        except requests.RequestException:
            logger.warning("Could not remove orphaned payment proof %s", path)


def proof_store_from_config(config):
    kind = config.get('PROOF_STORE', 'local')
    if kind == 'http':
        return HttpProofStore(
            base_url=config['PROOF_STORE_URL'],
            bucket=config.get('PROOF_STORE_BUCKET', 'payment-proofs'),
            api_key=config.get('PROOF_STORE_API_KEY'),
            timeout=float(config.get('PROOF_STORE_TIMEOUT', 10.0)),
        )
    if kind == 'local':
        return LocalProofStore(config['UPLOAD_FOLDER'], config['PUBLIC_BASE_URL'])
    raise ValueError(f"Unknown PROOF_STORE: {kind}")
