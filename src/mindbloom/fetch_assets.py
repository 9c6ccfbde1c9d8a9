# ==============================
# File: src/mindbloom/fetch_assets.py
# ==============================
import logging
import zipfile
from pathlib import Path

import requests
from tqdm import tqdm

from .config import CFG
from .utils import setup_logging

log = logging.getLogger(__name__)

VOSK_URL = 'https://alphacephei.com/vosk/models/vosk-model-small-en-us-0.15.zip'
PIPER_HF_URL = 'https://huggingface.co/rhasspy/piper-voices/resolve/main/en/en_US/lessac/medium/en_US-lessac-medium.onnx?download=true'
PIPER_JSON_URL = 'https://huggingface.co/rhasspy/piper-voices/resolve/main/en/en_US/lessac/medium/en_US-lessac-medium.onnx.json?download=true'


def _download(url: str, dest: Path):
    dest.parent.mkdir(parents=True, exist_ok=True)
    r = requests.get(url, stream=True, timeout=60)
    r.raise_for_status()
    total = int(r.headers.get('content-length', 0))
    with open(dest, 'wb') as f, tqdm(total=total, unit='B', unit_scale=True, desc=dest.name) as pbar:
        for chunk in r.iter_content(chunk_size=8192):
            if chunk:
                f.write(chunk)
                pbar.update(len(chunk))


def fetch_vosk(model_path: str | None = None) -> Path:
    """Download and unpack the Vosk model so that ``model_path`` exists."""
    target = Path(model_path or CFG.vosk_model_path)
    if target.exists():
        log.info('Vosk model already present at %s', target)
        return target
    zip_path = target.parent / (target.name + '.zip')
    if not zip_path.exists():
        _download(VOSK_URL, zip_path)
    with zipfile.ZipFile(zip_path, 'r') as z:
        z.extractall(target.parent)
    log.info('Vosk model extracted to %s', target.parent)
    return target


def fetch_piper_voice(model_path: str | None = None) -> Path:
    onnx_path = Path(model_path or CFG.piper_model_path)
    json_path = onnx_path.with_name(onnx_path.name + '.json')
    if not onnx_path.exists():
        _download(PIPER_HF_URL, onnx_path)
    if not json_path.exists():
        _download(PIPER_JSON_URL, json_path)
    log.info('Piper voice saved to %s', onnx_path.parent)
    return onnx_path


def main():
    setup_logging()
    try:
        fetch_vosk()
    except (requests.RequestException, zipfile.BadZipFile, OSError) as e:
        log.error('Failed to fetch Vosk model: %s', e)
    fetch_piper_voice()
    log.info('Done.')


if __name__ == '__main__':
    main()
