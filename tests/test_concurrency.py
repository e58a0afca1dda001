import threading

from carebook_app.services.admission import request_appointment
from carebook_app.services.errors import SlotTaken
from carebook_app.services.ledger import list_for_doctor


def test_concurrent_requests_for_one_slot_admit_exactly_one(app, clinic_day):
    results: list[str] = []
    errors: list[BaseException] = []
    lock = threading.Lock()
    start = threading.Barrier(8)

    def book(n: int) -> None:
        with app.app_context():
            start.wait()
            try:
                request_appointment("dr-lina", f"patient-{n}", clinic_day, "10:30")
                outcome = "ok"
            except SlotTaken:
                outcome = "taken"
            except BaseException as exc:  # surfaced below
                with lock:
                    errors.append(exc)
                return
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=book, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert results.count("ok") == 1
    assert results.count("taken") == 7
    booked = list_for_doctor("dr-lina", day=clinic_day)
    assert len(booked) == 1
