"""ckp-agent 命令行入口。"""
