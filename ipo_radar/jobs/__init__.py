from ipo_radar.jobs.ipo_refresh import RefreshResult, fetch_all_ipos, run_ipo_refresh

__all__ = ["RefreshResult", "fetch_all_ipos", "run_ipo_refresh"]
