from manualbg.pipeline import run_pipeline

if __name__ == "__main__":
    # 3 x 3 sectors on a 600 x 450 image: one click per sector, same phase
    points = [
        (80, 60), (280, 70), (480, 55),
        (90, 210), (300, 220), (500, 230),
        (70, 380), (310, 370), (520, 390),
    ]
    result = run_pipeline("data/input/test1.png", points)
    print({k: v for k, v in result.items() if k not in ("background", "corrected")})
