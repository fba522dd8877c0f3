import json
import numpy as np
import pandas as pd
import pytest

from utils.file_io import NumpyEncoder, save_dataframe, read_dataframe, save_json

def test_numpy_encoder():
    payload = {'i': np.int64(3), 'f': np.float32(0.5), 'a': np.arange(3)}
    assert json.loads(json.dumps(payload, cls=NumpyEncoder)) == {'i': 3, 'f': 0.5, 'a': [0, 1, 2]}

def test_save_dataframe_with_excel_copy(tmp_path):
    df = pd.DataFrame({'a': [1, 2], 'b': ['x', 'y']})
    path = save_dataframe(df, tmp_path / "nested" / "table.parquet", excel_copy=True)

    assert path.exists()
    assert (tmp_path / "nested" / "table.xlsx").exists()
    pd.testing.assert_frame_equal(read_dataframe(path), df)

def test_read_csv(tmp_path):
    path = tmp_path / "data.csv"
    pd.DataFrame({'a': [1.5]}).to_csv(path, index=False)
    assert read_dataframe(path)['a'].tolist() == [1.5]

def test_read_unsupported(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        read_dataframe(tmp_path / "data.json")

def test_save_json_creates_parents(tmp_path):
    path = save_json({'n': np.int32(4)}, tmp_path / "a" / "b.json")
    with open(path) as f:
        assert json.load(f) == {'n': 4}
