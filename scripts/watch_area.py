import logging
import os
import signal
import threading

from geofire import GeoPoint, setup


def main() -> None:
    logging.basicConfig(level=os.getenv("GEOFIRE_LOG_LEVEL", "INFO"))
    base_url = os.getenv("GEOFIRE_BASE_URL", "http://127.0.0.1:3000")
    api_key = os.getenv("GEOFIRE_API_KEY")
    collection = os.getenv("GEOFIRE_COLLECTION", "locations")
    center = GeoPoint.from_string(os.getenv("GEOFIRE_CENTER", "-23.5505,-46.6333"))
    radius = float(os.getenv("GEOFIRE_RADIUS_KM", "5"))

    geofire = setup(base_url=base_url, api_key=api_key, collection=collection)
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())

    print(f"watching {radius} km around {center} in {base_url}/{collection}")
    with geofire.store, geofire, geofire.query_at_location(center, radius) as query:
        query.listen(
            on_entered=lambda key, point: print(f"+ {key} {point}"),
            on_exited=lambda key: print(f"- {key}"),
            on_moved=lambda key, point: print(f"~ {key} {point}"),
            on_ready=lambda: print(f"ready: {len(query.members())} keys"),
            on_error=lambda error: print(f"! {error}"),
        )
        stop.wait()


if __name__ == "__main__":
    main()
