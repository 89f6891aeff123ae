"""
face_auth - face enrollment and verification.

Enroll a face as a biometric credential next to an email + password account,
then verify live captures against it. Subpackages:

- core: config, logging, exceptions, secret hashing, app state
- db: account records and credential store backends
- ml: model provider (YuNet + SFace) and the single-flight model gate
- capture: camera ownership and camera backends
- pipelines: descriptor extraction and the match decision
- flows: enrollment and verification state machines
"""

__version__ = "1.0.0"
