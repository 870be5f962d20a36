import time

from portwatch.config import load_settings
from portwatch.scanner import ProcessScanner
from portwatch.view_model import filter_visible, group_by_directory, sort_processes


def main() -> None:
    settings = load_settings()
    scanner = ProcessScanner()

    t0 = time.perf_counter()
    records = scanner.scan()
    first_elapsed = time.perf_counter() - t0

    visible = filter_visible(records, settings)
    groups = group_by_directory(sort_processes(visible, settings.sort_option))
    print(f"first scan: {first_elapsed:.3f}s, processes={len(records)}, visible={len(visible)}")

    t1 = time.perf_counter()
    scanner.scan()
    second_elapsed = time.perf_counter() - t1
    print(f"second scan: {second_elapsed:.3f}s")

    for group in groups:
        print(f"{group.directory_name}:")
        for record in group.processes:
            ports = ", ".join(str(port) for port in record.ports)
            print(f"  {record.pid:>7} {record.display_name} :{ports} cpu={record.cpu_percent:.1f}%")


if __name__ == "__main__":
    main()
