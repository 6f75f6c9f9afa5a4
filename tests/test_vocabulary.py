import threading
import time
from concurrent.futures import ThreadPoolExecutor

from lexmap.services.vocabulary import ReadWriteLock, Vocabulary


def test_segment_known_words(vocabulary):
    assert vocabulary.segment("价格日期") == ["价格", "日期"]


def test_unknown_han_run_falls_back_to_single_characters(vocabulary):
    assert vocabulary.segment("折扣") == ["折", "扣"]


def test_segment_is_deterministic(vocabulary):
    assert vocabulary.segment("价格猫咪日期") == vocabulary.segment("价格猫咪日期")


def test_add_term_makes_new_word_contiguous(vocabulary):
    vocabulary.add_term("折扣")
    assert vocabulary.segment("折扣价格") == ["折扣", "价格"]
    assert "折扣" in vocabulary
    assert len(vocabulary) == 1


def test_add_term_outweighs_shorter_words(vocabulary):
    vocabulary.add_term("价格日期")
    assert vocabulary.segment("价格日期") == ["价格日期"]


def test_remove_term_retracts_added_word(vocabulary):
    vocabulary.add_term("价格日期")
    vocabulary.remove_term("价格日期")
    assert vocabulary.segment("价格日期") == ["价格", "日期"]
    assert "价格日期" not in vocabulary


def test_remove_term_restores_base_dictionary_word(vocabulary):
    vocabulary.add_term("价格")
    vocabulary.remove_term("价格")
    # still a word: the base dictionary had it
    assert vocabulary.segment("价格") == ["价格"]


def test_remove_unknown_term_is_noop(vocabulary):
    vocabulary.remove_term("从未添加")
    assert vocabulary.segment("价格日期") == ["价格", "日期"]


def test_load_terms_skips_blank_entries(vocabulary):
    assert vocabulary.load_terms(["折扣", " ", "", "数量"]) == 2
    assert vocabulary.segment("折扣数量") == ["折扣", "数量"]


def test_concurrent_segmentation_sees_whole_updates(vocabulary):
    before = ["价格", "日期"]
    after = ["价格日期"]
    seen = []

    def reader():
        for _ in range(200):
            seen.append(vocabulary.segment("价格日期"))

    def writer():
        for _ in range(50):
            vocabulary.add_term("价格日期")
            vocabulary.remove_term("价格日期")

    with ThreadPoolExecutor(max_workers=5) as pool:
        futures = [pool.submit(reader) for _ in range(4)] + [pool.submit(writer)]
        for future in futures:
            future.result()

    assert all(result in (before, after) for result in seen)


def test_rwlock_readers_share_writer_excludes():
    lock = ReadWriteLock()
    state = {"readers": 0, "max_readers": 0, "writer_overlap": False}
    guard = threading.Lock()

    def read():
        with lock.read():
            with guard:
                state["readers"] += 1
                state["max_readers"] = max(state["max_readers"], state["readers"])
            time.sleep(0.02)
            with guard:
                state["readers"] -= 1

    def write():
        with lock.write():
            with guard:
                if state["readers"]:
                    state["writer_overlap"] = True
            time.sleep(0.01)

    threads = [threading.Thread(target=read) for _ in range(4)] + [threading.Thread(target=write) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert state["max_readers"] >= 1
    assert not state["writer_overlap"]


def test_rwlock_released_after_exception():
    lock = ReadWriteLock()
    try:
        with lock.write():
            raise ValueError("boom")
    except ValueError:
        pass
    # would block forever if the write lock leaked
    with lock.read():
        pass


def test_repeated_writes_do_not_shift_unrelated_segmentation(tmp_path):
    path = tmp_path / "tiny.txt"
    path.write_text("甲乙 1\n甲 1000\n乙 1000\n", encoding="utf-8")
    vocabulary = Vocabulary(path)
    base_total = vocabulary._tokenizer.total

    vocabulary.add_term("丙")
    expected = vocabulary.segment("甲乙")
    assert expected == ["甲", "乙"]
    for _ in range(10):
        vocabulary.add_term("丙")
    assert vocabulary.segment("甲乙") == expected

    for _ in range(10):
        vocabulary.remove_term("丙")
        vocabulary.add_term("丙")
    assert vocabulary.segment("甲乙") == expected

    vocabulary.remove_term("丙")
    assert vocabulary._tokenizer.total == base_total
