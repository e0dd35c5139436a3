"""
Health check page for the Streamlit application.

Add ``?format=json`` (and ``&endpoint=readiness`` or ``liveness``) for probes.
"""

from pairgallery.health import main

if __name__ == "__main__":
    main()
