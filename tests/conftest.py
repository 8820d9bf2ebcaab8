import os

# 테스트 중에는 로그 파일을 만들지 않는다 (settings import 전에 적용)
os.environ.setdefault("LOG_TO_FILE", "false")
