cur_version = "1"
version_prefix = f"/api/v{cur_version}"
