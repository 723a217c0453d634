import time

from geofire import GeoFire, GeoPoint, InMemoryDocumentStore


def main() -> None:
    store = InMemoryDocumentStore()
    with GeoFire(store) as geofire:
        geofire.set_location("driver:1", GeoPoint(-23.5505, -46.6333))
        geofire.set_location("driver:2", GeoPoint(-23.5600, -46.6400))
        geofire.set_location("driver:3", GeoPoint(-22.9068, -43.1729))

        query = geofire.query_at_location(GeoPoint(-23.5505, -46.6333), 3)
        with query:
            query.listen(
                on_entered=lambda key, point: print("entered", key, point),
                on_exited=lambda key: print("exited", key),
                on_moved=lambda key, point: print("moved", key, point),
                on_ready=lambda: print("ready"),
            )
            time.sleep(0.2)

            geofire.set_location("driver:3", GeoPoint(-23.5510, -46.6340))
            geofire.set_location("driver:1", GeoPoint(-23.5520, -46.6350))
            geofire.remove_location("driver:2")
            time.sleep(0.2)
            print(query.members())
    store.close()


if __name__ == "__main__":
    main()
