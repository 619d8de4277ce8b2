pytest_plugins = ["pytester", "query_sniffer.pytest_plugin"]
