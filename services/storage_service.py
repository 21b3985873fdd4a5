# services/storage_service.py
import json
import logging
import os
from typing import Dict, Any, Optional, Union, List

from utils.errors import StoreUnavailable

logger = logging.getLogger(__name__)

JsonData = Union[Dict[str, Any], List[Dict[str, Any]]]


class StorageService:
    """ローカルファイルシステムへのデータ永続化を管理するサービスクラス。

    JSON形式のデータの保存・読み込み機能を提供します。
    読み書きに失敗した場合は StoreUnavailable を送出します。
    """

    def __init__(self, base_path: str = "data") -> None:
        """StorageServiceのコンストラクタ。

        Args:
            base_path (str): データを保存する基準ディレクトリのパス。
                             存在しない場合は自動的に作成されます。
        """
        self.base_path = base_path
        os.makedirs(self.base_path, exist_ok=True)

    def get_path(self, file_name: str) -> str:
        """ベースパスとファイル名を結合して完全なファイルパスを取得する。

        Args:
            file_name (str): ファイル名。

        Returns:
            str: 完全なファイルパス。
        """
        return os.path.join(self.base_path, file_name)

    def save_json(self, file_name: str, data: JsonData) -> None:
        """データをJSONファイルとしてローカルに保存する。

        一時ファイルに書き出してから置き換えるため、書き込み途中で中断されても
        既存のファイルは壊れない。

        Args:
            file_name (str): 保存するファイル名。
            data (Union[Dict, List]): 保存するデータ（辞書または辞書のリスト）。

        Raises:
            StoreUnavailable: ファイルの書き込みに失敗した場合。
        """
        file_path = self.get_path(file_name)
        temp_path = f"{file_path}.tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=4)
            os.replace(temp_path, file_path)
        except OSError as e:
            logger.error("ファイル保存中にエラーが発生しました: %s, %s", file_path, e)
            raise StoreUnavailable(f"データを保存できませんでした: {file_path}") from e
        logger.debug("データを %s に保存しました。", file_path)

    def load_json(self, file_name: str) -> Optional[JsonData]:
        """ローカルのJSONファイルからデータを読み込む。

        Args:
            file_name (str): 読み込むファイル名。

        Returns:
            Optional[Union[Dict, List]]: 読み込まれたデータ。ファイルが存在しない場合はNone。

        Raises:
            StoreUnavailable: ファイルが読めない、またはJSONとして壊れている場合。
        """
        file_path = self.get_path(file_name)
        if not os.path.exists(file_path):
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("ファイル読み込み中にエラーが発生しました: %s, %s", file_path, e)
            raise StoreUnavailable(f"データを読み込めませんでした: {file_path}") from e
